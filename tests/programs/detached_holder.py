# detached_holder.py: print, then leave a grandchild in its own session holding stdout
import subprocess, sys, time

print("partial", flush=True)
p = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"], start_new_session=True)
with open("grandchild.pid", "w") as f:
    f.write(str(p.pid))
time.sleep(30)
