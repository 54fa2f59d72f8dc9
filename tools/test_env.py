from dotenv import load_dotenv
load_dotenv()

import os

print("SUPABASE_URL:", os.environ.get("SUPABASE_URL"))
print("ANON_KEY prefix:", os.environ.get("SUPABASE_ANON_KEY", "")[:20])
print("SERVICE_ROLE prefix:", os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")[:20])
print("DATABASE_URL set:", bool(os.environ.get("DATABASE_URL")))
print("SUPABASE_BUCKET:", os.environ.get("SUPABASE_BUCKET", "assistidas"))
print("APP_TIMEZONE:", os.environ.get("APP_TIMEZONE", "America/Maceio"))
