# padded_five.py: answer surrounded by extra whitespace
print("  5   ")
