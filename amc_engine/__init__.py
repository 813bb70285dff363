"""AMC engine - annual maintenance contracts for generator assets"""
