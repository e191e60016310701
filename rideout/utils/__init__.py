"""
Utility modules for RideOut.

Cross-cutting concerns:
- Storage: document store (in-memory and JSON files)
- Uploader: image object storage
- Timestamps: sortable UTC timestamps
"""
