from routers import addresses, auth, cart, categories, orders, products, users

ALL = (auth.router, products.router, categories.router, users.router, addresses.router, orders.router, cart.router)
