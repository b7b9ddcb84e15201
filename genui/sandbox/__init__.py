"""Sandbox: capability catalog, hook runtime, evaluator and fallback view."""

from genui.sandbox.catalog import CATALOG_VERSION, DEFAULT_CATALOG, Catalog, allowed_names, build_default_catalog
from genui.sandbox.evaluator import CompiledComponent, compile_component, evaluate, render
from genui.sandbox.fallback import render_fallback

__all__ = [
    "CATALOG_VERSION",
    "DEFAULT_CATALOG",
    "Catalog",
    "CompiledComponent",
    "allowed_names",
    "build_default_catalog",
    "compile_component",
    "evaluate",
    "render",
    "render_fallback",
]
