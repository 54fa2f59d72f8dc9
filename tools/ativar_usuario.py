"""
tools/ativar_usuario.py

Ativa (ou desativa) um perfil na tabela public.profiles e define o papel.

Uso:
    python tools/ativar_usuario.py <email> [--role gestor|admin|guarnicao] [--nome-guerra "Sd Fulana"] [--desativar]

✅ Regras:
- Procura o usuário pelo e-mail no Supabase Auth (service role)
- Cria o perfil se ainda não existir (upsert por user_id)
- Só papéis conhecidos: admin, gestor, guarnicao
"""

from dotenv import load_dotenv
load_dotenv()

import os
import argparse
from supabase import create_client


SUPABASE_URL = os.environ["SUPABASE_URL"]
SUPABASE_SERVICE_ROLE_KEY = os.environ["SUPABASE_SERVICE_ROLE_KEY"]

ROLES = ("admin", "gestor", "guarnicao")


def find_user_id(supabase, email: str) -> str | None:
    email = email.strip().lower()
    page = 1
    while True:
        users = supabase.auth.admin.list_users(page=page, per_page=200)
        if not users:
            return None
        for u in users:
            if (u.email or "").lower() == email:
                return u.id
        page += 1


def main():
    parser = argparse.ArgumentParser(description="Ativa um perfil do Painel do Gestor.")
    parser.add_argument("email")
    parser.add_argument("--role", choices=ROLES, default="gestor")
    parser.add_argument("--nome-guerra", default=None)
    parser.add_argument("--desativar", action="store_true")
    args = parser.parse_args()

    supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    print(f"[INFO] Procurando {args.email} no Supabase Auth...")
    user_id = find_user_id(supabase, args.email)
    if not user_id:
        raise SystemExit(f"[ERRO] Usuário {args.email} não encontrado no Auth.")

    row = {
        "user_id": user_id,
        "role": args.role,
        "ativo": not args.desativar,
    }
    if args.nome_guerra:
        row["nome_guerra"] = args.nome_guerra.strip()

    supabase.table("profiles").upsert(row, on_conflict="user_id").execute()

    status = "desativado" if args.desativar else "ativo"
    print(f"[OK] Perfil {user_id} ({args.email}) {status} com papel '{args.role}'.")


if __name__ == "__main__":
    main()
