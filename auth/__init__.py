"""auth/ -- Identity service and token gate for CarVault.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, cars/, or storage/.
api/ imports from auth/, not the other way around.
"""
