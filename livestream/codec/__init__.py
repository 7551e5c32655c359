"""Audio codec parsers for AAC and MP3 streams."""