"""Dominio, puertos y excepciones compartidas."""
