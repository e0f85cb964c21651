"""Reversible transforms and the hoster pipelines composed from them."""
