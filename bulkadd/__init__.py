"""Bulk-add pipeline: free-text restaurants → Google Places → ZIP → Doof neighborhoods."""
