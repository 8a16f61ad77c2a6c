# freezer_server/app/main.py
import socket
import uvicorn
from .config import settings

def get_local_ip():
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(('8.8.8.8', 80))
        ip = s.getsockname()[0]
    except OSError:
        ip = '127.0.0.1'
    finally:
        s.close()
    return ip

def main():
    print(f"Freezer Log API on http://{get_local_ip()}:{settings.PORT}/api")
    uvicorn.run('freezer_server.app.api:app', host=settings.HOST, port=settings.PORT,
                log_level=settings.LOG_LEVEL)

if __name__ == '__main__':
    main()
