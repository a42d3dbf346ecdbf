# flake8: noqa
"""
Web gateway that asks a local Ollama server for book recommendations.

Modules:
    settings:  Configuration defaults, optional JSON file and environment overrides.
    ollama:    HTTP client for Ollama's model listing and chat endpoints.
    service:   Recommendation pipeline: validation, model check, prompting.
    templates: The single-page browser client.
    main:      FastAPI application wiring everything together.
"""
