"""HTTP surface: scan trigger, alert CRUD, and push subscription routes."""
