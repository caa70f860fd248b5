"""
Export pipeline components.

Modules:
    metadata: Resolves which measures can be grouped by which dimensions
    retry: Backoff policy and retry classification
    runner: Export orchestrator driving fetches and writes

Subpackages:
    extractors: Analytics API client and metric fetcher
    loaders: Warehouse sinks (BigQuery, SQL) and the partition writer

Architecture:
    1. Metadata - Validate the date window and build the availability map
    2. Fetch - One time-series request per (measure, dimension) cell, with
       retry and backoff on rate limits and transient failures
    3. Write - Idempotent per-date partition writes (delete by app, then load)

Usage:
    from ingestion.extractors.analytics_client import AnalyticsClient
    from ingestion.loaders.bigquery_sink import BigQuerySink
    from ingestion.runner import ExportOrchestrator

Example:
    async with AnalyticsClient() as client:
        session = await client.login(username, password)
        orchestrator = ExportOrchestrator(client, session, BigQuerySink(project, dataset))
        summary = await orchestrator.run(job)

    print(f"Wrote {summary.partitions_written} partitions")
"""

__all__ = [
    "AnalyticsClient",
    "MetricFetcher",
    "MetadataResolver",
    "BackoffPolicy",
    "ExportOrchestrator",
    "PartitionWriter",
    "WarehouseSink",
    "BigQuerySink",
    "SqlWarehouseSink",
]
