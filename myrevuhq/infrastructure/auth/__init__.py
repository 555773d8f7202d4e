from .supabase_auth import AuthProviderError, AuthUser, SupabaseAuthClient, build_auth_client

__all__ = ["AuthProviderError", "AuthUser", "SupabaseAuthClient", "build_auth_client"]
