"""matchfacts: match-event and player-stat extraction for FotMob matches."""
