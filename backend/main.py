import uvicorn
import sys
import os

# 确保以 backend/ 为工作目录，.env 和数据库文件都相对于这里
application_path = os.path.dirname(os.path.abspath(__file__))
os.chdir(application_path)
if application_path not in sys.path:
    sys.path.insert(0, application_path)

if __name__ == "__main__":
    uvicorn.run(
        "farm_office.main:app",
        host="127.0.0.1",  # 只监听本地
        port=8000,
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level="info"
    )
