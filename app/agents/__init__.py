# =============================================================================
# Agents Package — LangGraph MD&A Report Generation
# =============================================================================
#   - report_graph.py: StateGraph kpis → context → write → assemble
#   - writers.py: template (deterministic) and LLM (concurrent) section writers
# =============================================================================
