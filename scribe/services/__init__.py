"""
SERVICES PACKAGE
=================

Business logic lives here. The API layer (scribe.main) calls these services;
they don't handle HTTP routing, only the drafting pipeline and data.

MODULES:
    text_cleanup        - normalize_text() rule pipeline and smart_join()
    response_extractor  - extract_text(): generated text out of any response shape
    vector_store        - CorpusStore (atomic snapshots), EmbeddingClient, RetrievalRanker
    prompt_builder      - build_messages(): system/style/user messages
    openai_http         - headers and error mapping shared by the HTTP clients
    completion_service  - CompletionClient.call_once(): one Responses call
    continuation        - ContinuationOrchestrator: multi-round continuation loop
    streaming           - StreamEmitter: SSE frames with disconnect handling
    writer_service      - WriterService: the whole pipeline for one request
    index_builder       - build_index(): data/sources -> data/index.json
"""
