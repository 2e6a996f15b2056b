"""Configuración y utilidades compartidas del hub."""
