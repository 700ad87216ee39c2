"""External collaborators: repository packing and Athena data queries."""
