"""FastAPI front end for pdfshrink."""
