from painel import app
from painel.errors import ValidationFailure
from painel.services.users import create_user
import getpass
import logging

logging.basicConfig(level=logging.INFO)

def main():
    """Função principal para criar o usuário administrador."""
    logging.info("Criar Usuário Admin")

    name = input("Nome completo: ")
    email = input("Email: ")
    password = getpass.getpass("Senha: ")

    try:
        user = create_user({"name": name, "email": email, "role": "admin"}, password)
    except ValidationFailure as exc:
        logging.error("Não foi possível criar o usuário: %s", exc.message)
        raise SystemExit(1) from exc

    logging.info("Usuário '%s' criado com sucesso com a role de 'admin'!", user.email)

if __name__ == '__main__':
    # O script precisa do contexto da aplicação para acessar o db
    with app.app_context():
        main()
