"""TLS certificate summaries, best-match selection, a refreshed cache and test fakes."""