"""
Session authentication for the dashboard.

Design goals:
- One fixed demo identity, configured from the environment.
- Stateless signed session token carried in an HttpOnly cookie.
- Framework-free: the long-running server and the per-request handlers both
  call into this package and only adapt requests/responses at the edges.
"""
