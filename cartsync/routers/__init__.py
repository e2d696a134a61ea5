"""HTTP routers for the cart API."""
