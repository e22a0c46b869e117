"""
S.C.R.I.B.E APPLICATION PACKAGE
===============================

Main Python package for the S.C.R.I.B.E backend: a blog-drafting assistant
that writes in one author's voice, grounded in excerpts from their past posts.

  from scribe.main import app
  from scribe.models import ChatRequest
  from scribe.services.writer_service import WriterService

FILE STRUCTURE:
  scribe/
    __init__.py   - This file; marks 'scribe' as a package.
    main.py       - FastAPI app and all HTTP endpoints.
    models.py     - Pydantic models for requests, responses and pipeline values.
    errors.py     - Exception types and the warnings they turn into.
    services/     - Drafting pipeline: retrieval, prompt, completion, continuation, streaming.
    utils/        - Helpers: retry with backoff, last-match lookup.
"""
