# spin.py: never terminates
while True:
    pass
