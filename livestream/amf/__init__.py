"""AMF0 and AMF3 encoding and decoding, and stream metadata reforming."""