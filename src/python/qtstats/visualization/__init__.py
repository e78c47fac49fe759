"""
visualization - matplotlib plots of QTS samples and their aggregates.
"""
