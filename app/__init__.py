# =============================================================================
# Automated MD&A Generator
# =============================================================================
# Turns uploaded tabular financial data into KPIs and a narrative Management
# Discussion & Analysis report, with optional retrieval of similar
# historical statement records as extra context.
#
# Package structure:
#   app/
#   ├── api/          → FastAPI route handlers (datasets, kpis, embeddings,
#   │                    reports, admin)
#   ├── agents/       → LangGraph report graph and section writers
#   ├── db/           → Database engine, ORM models, owner-scoped queries
#   ├── kpi/          → Pure KPI computation engine and summary formatter
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → CSV parsing, chunking, embedding, vector store, LLM
#   └── workers/      → Celery task definitions and configuration
# =============================================================================
