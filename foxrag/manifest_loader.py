"""Manifest loader — parse and validate foxrag.yaml."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from contracts.manifest import Manifest

MANIFEST_ENV = "FOXRAG_MANIFEST"
DEFAULT_MANIFEST = "./foxrag.yaml"


def load_manifest(path: str) -> Manifest:
    """Load a foxrag.yaml file and return a validated Manifest."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")

    raw = p.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a YAML mapping, got {type(data).__name__}")

    return Manifest(**data)


def resolve_manifest() -> Manifest:
    """Load the manifest named by $FOXRAG_MANIFEST, falling back to defaults.

    An explicitly configured path must exist; the implicit default may be
    absent. $OLLAMA_HOST overrides the model backend URL.
    """
    explicit = os.environ.get(MANIFEST_ENV)
    if explicit:
        manifest = load_manifest(explicit)
    elif Path(DEFAULT_MANIFEST).exists():
        manifest = load_manifest(DEFAULT_MANIFEST)
    else:
        manifest = Manifest()

    ollama_host = os.environ.get("OLLAMA_HOST")
    if ollama_host:
        if "://" not in ollama_host:
            ollama_host = f"http://{ollama_host}"
        manifest.models.base_url = ollama_host
    return manifest
