"""
Food-contact compliance app.

This app contains:
- Database models for chemicals, regulations and their SML values.
- API views for the catalogue, the public search and the worst-case
  migration (M value) calculator.
"""
