"""HTTP control server for the AxiDraw controller."""
