"""Generate an example .hl7 file and walk through a few edits on it."""

import sys
sys.path.insert(0, str(__import__("pathlib").Path(__file__).parent.parent))

from hl7tree import parse, data, get, set, insert_after, delete
from hl7tree.writer import HL7Writer

SEGMENTS = [
    "MSH|^~\\&|LAB|GENERAL HOSPITAL|EHR|GENERAL HOSPITAL|20240101120000||ORU^R01|MSG0001|P|2.5",
    "PID|1||MRN123^^^GH^MR~987654^^^SSA^SS||DOE^JANE^Q^^DR&PHD||19700101|F",
    "OBR|1|ORD1|FIL1|24331-1^Lipid Panel^LN",
    "OBX|1|NM|2093-3^Cholesterol^LN||196|mg/dL|<200|N|||F",
    "OBX|2|NM|2571-8^Triglycerides^LN||135|mg/dL|<150|N|||F",
    "OBX|3|NM|2085-9^HDL^LN||42|mg/dL|>40|N|||F",
]

msg = parse("\r".join(SEGMENTS))

# Correct the second result and annotate the first
msg = set(msg, "4.5", "140")
msg = insert_after(msg, "3", "NTE|1||Fasting sample")
msg = delete(msg, "PID.3.1")

output = str(__import__("pathlib").Path(__file__).parent / "oru.hl7")
nbytes = HL7Writer.write(msg, output)
print(f"Generated {output} ({nbytes} bytes)")

print()
print("=" * 60)
print("MATCHES FOR OBX.3.0.1.0:")
print("=" * 60)
for value, address in get(msg, "OBX.3.0.1.0"):
    print(f"  {address:12s} {value}")

print()
print("=" * 60)
print("RAW .hl7 FILE CONTENTS (one segment per line):")
print("=" * 60)
print()
print(data(msg).replace("\r", "\n"))
