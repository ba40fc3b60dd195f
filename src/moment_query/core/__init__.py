"""
Corpus and analytics layer.

- models: the immutable Moment record and its closed vocabularies
- data_loader: hydration records -> moments, moments -> pandas frame
- catalog: known company/technology names
- timeframes: timeframe grammar (extraction and window resolution)
- filters: the monotonic filter chain
- analytics, trends: insight, correlation, pattern and trend helpers
- visualization: payload builders for the rendering layer
- query_engine: QueryExecutor, which runs intents against the corpus
"""
