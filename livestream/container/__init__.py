"""FLV tag parsing and recording, and MPEG-TS muxing."""