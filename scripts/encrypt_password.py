from cryptography.fernet import Fernet
import sys

def generate_key():
    """
    Generate a new encryption key, to be exported as DB2POOL_KEY.
    """
    return Fernet.generate_key().decode()

def encrypt_password(password: str, key: str) -> str:
    """
    Encrypt a password using a key.
    """
    cipher_suite = Fernet(key.encode())
    return cipher_suite.encrypt(password.encode()).decode()

if __name__ == "__main__":
    if len(sys.argv) == 2 and sys.argv[1] == "--generate-key":
        print(generate_key())
        sys.exit(0)
    if len(sys.argv) != 3:
        print("Usage: python encrypt_password.py <password> <key>")
        print("       python encrypt_password.py --generate-key")
        sys.exit(1)

    password = sys.argv[1]
    key = sys.argv[2]
    encrypted_password = encrypt_password(password, key)
    print(f"Encrypted password: {encrypted_password}")
    print("Set db_passwd_encrypted: true and export DB2POOL_KEY=<key>")
