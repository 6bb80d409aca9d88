"""Product catalog: search, category hierarchy, reviews and sales analytics."""
