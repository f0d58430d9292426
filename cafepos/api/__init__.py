"""HTTP routers for CafePOS."""
