"""page_scout.crawler: crawl orchestration (ledger, limiter, cancellation, branch tracking)."""
