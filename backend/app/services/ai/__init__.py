"""
LLM-backed services.

The insight agent interprets questionnaire answers and writes the search
query. Retrieval and ranking stay in deterministic services
(app.services.search, app.services.catalog).
"""
