"""Support code imported by modules generated with protoc-gen-idiom."""
