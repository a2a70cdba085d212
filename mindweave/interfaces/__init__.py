"""Abstract interfaces for every external collaborator.

Business logic depends only on these ABCs; concrete adapters live in
``mindweave/providers/`` and are wired together in ``mindweave/main.py``.

    Interface            →  Concrete implementations
    ──────────────────────────────────────────────────────────────
    IConnector           →  Text/YouTube/PDF/Web/WebSearch connectors
                            (mindweave/services/ingestion/connectors/)
    ILLMProvider         →  OpenAILLMProvider, AnthropicLLMProvider
    IWebSearchProvider   →  TavilySearchProvider, SerpAPISearchProvider,
                            BingSearchProvider
    IRecordStore         →  MemoryRecordStore, SQLiteRecordStore
    IScheduler           →  InlineScheduler, BackgroundScheduler
    IKeyVault            →  SettingsKeyVault
"""
