"""Due-date normalisation and the course/assignment merge store."""
