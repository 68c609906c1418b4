"""Zule PFP - FastAPI REST API layer.

Modules
-------
main
    FastAPI application, route handlers and the ``main()`` CLI entry point.
models
    Pydantic request models.
prompt_builder
    Prompt strategies (trucker-hat avatar, trait-driven sketch character).
pipeline
    Generate, watermark, publish and record a single picture.
"""
