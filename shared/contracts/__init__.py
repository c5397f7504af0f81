"""Queue contracts shared by the API and worker services."""
