"""
Aggregation and ranking.

- Aggregator: recompute item statistics from all ratings
- Feed Ranker: newest / top rated / leaderboard pages
- Live Publisher: real-time feed windows
- Leaderboard Exporter: CSV report
"""
