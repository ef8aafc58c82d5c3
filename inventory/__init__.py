"""
Inventory Django application.

Crawls store inventories from the catalog provider, caches store search
results, and resolves shopping-list items against crawled inventory.
"""
