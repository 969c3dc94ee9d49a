"""
Products: catalog items with uploaded images.

- `router.py`: HTTP adapters
- `service.py`: validation + orchestration
- `repository.py`: SQL (product + product_images transactions)
- `images.py`: the on-disk image store
"""
