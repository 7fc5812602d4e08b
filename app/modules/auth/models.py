# Supabase Auth
# This module uses Supabase's built-in authentication system
# Identities live in auth.users; the application profile (with its role)
# is provisioned into the profiles table by the handle_new_user trigger.

"""
Supabase Auth provides:
- auth.sign_up() - Register new users (full_name/phone go to user metadata)
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Get current user from JWT token
- auth.set_session() - Attach an existing session to a client (live screens)
- auth.on_auth_state_change() - SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED events
- auth.sign_out() - Logout users
"""
